"""Gadget Flash - deploy multi-part firmware images to Gadget boards.

This package streams kernel, device tree and rootfs artifacts to a board
over ssh, then switches the board to the new image slot and reboots it.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
