"""Domain services: segmentation, parsing, normalization, duplicates, merging, import."""
