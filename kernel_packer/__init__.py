"""Kernel Packer - build an Android kernel and pack it into an AnyKernel3 zip.

This package provides orchestration around a kernel source tree's own
``make`` build and the AnyKernel3 packaging repository.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
