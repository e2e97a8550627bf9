"""Row normalization and the per-import processing run."""
