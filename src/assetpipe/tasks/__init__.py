"""Task modules live here.

One module per build step (`clean`, `styles`, `scripts`, `images`, `fonts`)
plus the long-running `watch` and `serve` controllers. Each task function is
decorated with `@orchestrator.task(name=...)` and listed in
`orchestrator.registry`.

Do not implement logic here unless it's shared helpers; keep tasks modular per file.
"""
