"""Amazon Linux 2023 Common Lisp OCI image builder.

This package wraps ``docker build`` around a bundled image recipe that
installs a compiler toolchain and Roswell, then tags the resulting image
after the Common Lisp implementation it carries.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
