from pathlib import Path

import jinja2

_TEMPLATE_DIR = Path(__file__).parent / "templates"


def get_template_env() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(_TEMPLATE_DIR),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=jinja2.StrictUndefined,
    )


def render_template(template_name: str, **context: object) -> str:
    return get_template_env().get_template(template_name).render(**context)
