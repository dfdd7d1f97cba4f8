"""nodestrap - bootstrap a Node.js toolchain backed service before UI hand-off."""

__version__ = "0.3.0"
