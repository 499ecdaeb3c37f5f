"""
Generate a markdown reference of the operations offered by Kernels.
"""

import inspect
import logging
from pathlib import Path

from gpu_kernels import Kernels

log = logging.getLogger(__name__)

TITLE = "# GPU operation reference\n\n"
FOOTER = (
    "[Back to CLIJ documentation](https://clij.github.io/)\n"
    "\n"
    "[Imprint](https://clij.github.io/imprint)\n"
)


def operation_names():
    return sorted(
        name
        for name, member in inspect.getmembers(Kernels, inspect.isfunction)
        if hasattr(member, "available_for_dimensions")
    )


def _operation(name):
    member = getattr(Kernels, name, None)
    if member is None or not hasattr(member, "available_for_dimensions"):
        raise ValueError(f"Unknown operation: {name}")
    return member


def parameter_help_text(name):
    parameters = inspect.signature(_operation(name)).parameters.values()
    return ", ".join(str(p) for p in parameters if p.name != "self")


def search_for_example_scripts(name, search_dir, link_base=""):
    """Markdown list of the scripts in search_dir calling the operation."""
    search_dir = Path(search_dir)
    if not search_dir.is_dir():
        return ""

    skip = {Path(inspect.getsourcefile(Kernels)).resolve(), Path(__file__).resolve()}
    call = f".{name}("
    links = []
    for script in sorted(search_dir.glob("*.py")):
        if script.resolve() in skip:
            continue
        if call in script.read_text(encoding="utf-8", errors="ignore"):
            links.append(f"* [{script.name}]({link_base}{script.name})")
    return "\n".join(links)


def generate_method_reference(output_path="reference.md", examples_dir=None, link_base=""):
    if examples_dir is None:
        examples_dir = Path(__file__).parent

    names = operation_names()
    parts = [TITLE]
    for name in names:
        member = _operation(name)
        parts.append(f'<a name="{name}"></a>\n')
        parts.append(f"## {name}\n\n")
        description = inspect.getdoc(member)
        if description:
            parts.append(f"{description}\n\n")
        parts.append(f"Available for: {member.available_for_dimensions}\n\n")
        parts.append(f"Parameters: `{parameter_help_text(name)}`\n\n")

        examples = search_for_example_scripts(name, examples_dir, link_base)
        if examples:
            parts.append(f"### Example scripts\n{examples}\n\n")

    parts.append(f"\n{len(names)} operations documented.\n\n")
    parts.append(FOOTER)
    documentation = "".join(parts)

    Path(output_path).write_text(documentation, encoding="utf-8")
    log.info("Wrote %d operations to %s", len(names), output_path)
    return documentation


def main():
    logging.basicConfig(level=logging.INFO)
    generate_method_reference()


if __name__ == "__main__":
    main()
