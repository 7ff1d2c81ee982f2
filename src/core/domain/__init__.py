"""Domain models and pure logic.

Why:
- Plain, strict data structures (Pydantic v2) and synchronous functions live
  here: message decoding, discovery data, row projection and diffing.
- The domain knows nothing about HTTP, files, the CLI or the browser.
"""
