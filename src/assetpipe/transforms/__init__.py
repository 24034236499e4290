"""In-repo transforms used by the build tasks: vendor prefixing, script
linting, concatenation with source maps."""
