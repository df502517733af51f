"""
Order lifecycle services.

Import submodules directly; the models depend on ``enums`` so this package
must not import the service layer eagerly.
"""
