# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

log = logging.getLogger("etcdboot")

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent / "etcd" / "templates"


def expand_env_vars(value: str) -> str:
    return re.sub(r"\$\{([^}^{]+)\}", lambda m: os.getenv(m.group(1), m.group(0)), value)


class TemplateRenderer:
    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = Path(templates_dir or DEFAULT_TEMPLATES_DIR)
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def render(self, template_name: str, context: dict) -> str:
        expanded = {k: expand_env_vars(v) if isinstance(v, str) else v for k, v in context.items()}
        tmpl = self.env.get_template(template_name)
        return tmpl.render(**expanded)

    def render_to(self, runner, template_name: str, dest: str, context: dict, *, mode: int = 0o644) -> str:
        """
        Render *template_name* and write it to *dest* on the runner's host (as root).
        Returns the rendered text.
        """
        content = self.render(template_name, context)
        log.debug("(%s) rendering %s -> %s", runner.hostname, template_name, dest)
        runner.put_text(content, dest, sudo=True, mode=mode)
        return content
