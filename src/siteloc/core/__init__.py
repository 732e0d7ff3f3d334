"""Location resolution pipeline."""
