"""Code Runner API: runs untrusted code submissions in throwaway containers."""

__version__ = "1.0.0"
