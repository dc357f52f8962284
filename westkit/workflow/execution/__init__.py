"""Execution layer for the westkit workflow.

This package contains the components that touch the host:

- **process**: External process runner (line-pumped asyncio subprocesses)
- **environment**: Workspace layout and venv process environment
- **manifest**: Local west manifest generation, requirements discovery
- **pipeline**: Setup pipeline (manifest -> west update -> venv -> pip)
- **waiting**: Stage preconditions, retry policy, caller-side waiting
- **host**: Host tool probe (``check-dependencies``)
- **toolchain**: Zephyr SDK installation
- **templates**: Built-in application templates (Jinja2)
- **boards**: Board definition discovery
- **builder**: ``west build`` execution
"""
