"""MKS TFT preview: G-code thumbnail post-processor for MKS TFT displays.

Replaces the base64 preview image a slicer embeds in G-code with the
``;simage:`` / ``;;gimage:`` RGB565 blocks the MKS TFT firmware shows on its
file list and print screens.

Architecture layers (strict one-way dependency):
    cli → pipeline → thumbnail/{scanner,codec,transform,firmware,rewriter} → utils/

Key invariants:
    - One invocation converts exactly one file
    - The original file is only ever replaced atomically (tmp → rename)
    - Firmware output is byte-exact RGB565 little-endian hex
"""

__version__ = "0.3.0"
