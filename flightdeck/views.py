"""
Template rendering for the ``render`` built-in.
"""

import os
from typing import Any, Dict, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape


class View:
    """Jinja2-backed view with a set of shared template variables.

    Variables set on the view are available to every template; data passed to
    ``fetch`` takes precedence over them.

    Examples:
        view = View("./templates")
        view.set("site", "Example")
        view.fetch("hello", {"name": "Bob"})  # renders ./templates/hello.html
    """

    def __init__(self, path: str = "./views", extension: str = ".html", unsafe: bool = False):
        """
        Args:
            path: Template directory
            extension: Appended to template names that have no extension
            unsafe: If True, autoescape is disabled (use with caution)
        """
        self.path = path
        self.extension = extension
        self.unsafe = unsafe
        self.vars: Dict[str, Any] = {}
        self._env: Optional[Environment] = None

    @property
    def environment(self) -> Environment:
        if self._env is None:
            # Note: autoescape can be disabled via unsafe=True for trusted content
            self._env = Environment(  # nosec B701
                loader=FileSystemLoader(self.path),
                autoescape=select_autoescape() if not self.unsafe else False,
            )
        return self._env

    def set(self, key: Any, value: Any = None) -> None:
        """Set a template variable, or several from a mapping."""
        if isinstance(key, Mapping):
            self.vars.update(key)
        else:
            self.vars[key] = value

    def get(self, key: str) -> Any:
        return self.vars.get(key)

    def has(self, key: str) -> bool:
        return key in self.vars

    def clear(self, key: Optional[str] = None) -> None:
        if key is None:
            self.vars.clear()
        else:
            self.vars.pop(key, None)

    def get_template_name(self, template: str) -> str:
        if os.path.splitext(template)[1]:
            return template
        return template + self.extension

    def exists(self, template: str) -> bool:
        return os.path.isfile(os.path.join(self.path, self.get_template_name(template)))

    def fetch(self, template: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """Render a template file and return the output.

        Raises:
            ValueError: the template cannot be found
        """
        context = dict(self.vars)
        if data:
            context.update(data)
        name = self.get_template_name(template)
        try:
            template_obj = self.environment.get_template(name)
        except TemplateNotFound as e:
            raise ValueError(f"Template file not found: {os.path.join(self.path, name)}") from e
        return template_obj.render(**context)

    def render_inline(self, source: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """Render an inline template string."""
        context = dict(self.vars)
        if data:
            context.update(data)
        return Template(source, autoescape=not self.unsafe).render(**context)
