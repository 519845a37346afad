"""InkScribe glyph engine: segmentation, normalization and recognition pipeline."""
