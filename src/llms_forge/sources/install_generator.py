"""install.md generation from structured form data.

Anything :func:`validate_generator_data` accepts renders to a document
that passes :func:`llms_forge.sources.install_md.is_valid_install_md`.
"""

import re
import uuid
from typing import NamedTuple

from llms_forge.models import CodeBlock, InstallMdGeneratorData, InstallStep, TodoItem

_NAME_SLUG_RE = re.compile(r"[^a-z0-9]+")


def new_id() -> str:
    return uuid.uuid4().hex[:8]


def create_default_generator_data() -> InstallMdGeneratorData:
    """Blank form: one empty TODO item and one empty step."""
    return InstallMdGeneratorData(
        todo_items=[TodoItem(id=new_id(), text="")],
        steps=[InstallStep(id=new_id(), title="")],
    )


def generate_install_md(data: InstallMdGeneratorData) -> str:
    """Render generator data as install.md text."""
    lines: list[str] = []

    slug = _NAME_SLUG_RE.sub("-", data.product_name.lower()).strip("-")
    lines += [f"# {slug or 'product-name'}", ""]

    if data.description:
        lines += [f"> {data.description}", ""]

    lines += [
        f"I want you to install {data.product_name or 'this software'} for me. "
        "Execute all the steps below autonomously.",
        "",
    ]

    if data.objective:
        lines += [f"OBJECTIVE: {data.objective}", ""]
    if data.done_when:
        lines += [f"DONE WHEN: {data.done_when}", ""]

    lines += ["## TODO", ""]
    for item in data.todo_items:
        if item.text.strip():
            checkbox = "[x]" if item.completed else "[ ]"
            lines.append(f"- {checkbox} {item.text}")
    lines.append("")

    for step in data.steps:
        if not step.title.strip():
            continue
        lines += [f"## {step.title}", ""]
        if step.description.strip():
            lines += [step.description, ""]
        for block in step.code_blocks:
            if block.label:
                lines += [f"{block.label}:", ""]
            lines += [f"```{block.language or 'bash'}", block.code, "```", ""]

    lines.append(
        "EXECUTE NOW: Complete the above TODO list to achieve: "
        f"{data.objective or 'successful installation'}."
    )
    return "\n".join(lines).strip() + "\n"


def validate_generator_data(data: InstallMdGeneratorData) -> tuple[bool, list[str]]:
    """Check the form is complete enough to render.

    Returns:
        ``(is_valid, errors)`` with every failed check listed.
    """
    errors: list[str] = []
    if not data.product_name.strip():
        errors.append("Product name is required")
    if not data.objective.strip():
        errors.append("Objective is required")
    if not data.done_when.strip():
        errors.append("Done When criteria is required")
    if not any(item.text.strip() for item in data.todo_items):
        errors.append("At least one TODO item is required")
    if not any(step.title.strip() for step in data.steps):
        errors.append("At least one step is required")
    return not errors, errors


# ---------------------------------------------------------------------------
# Starter templates
# ---------------------------------------------------------------------------


class InstallMdTemplate(NamedTuple):
    name: str
    description: str
    objective: str
    done_when: str
    todos: tuple[str, ...]
    # (title, description, ((language, code, label), ...))
    steps: tuple[tuple[str, str, tuple[tuple[str, str, str | None], ...]], ...]


INSTALL_MD_TEMPLATES: dict[str, InstallMdTemplate] = {
    "npm": InstallMdTemplate(
        name="NPM Package",
        description="For npm/yarn/pnpm installable packages",
        objective="Install the package and verify it works correctly.",
        done_when="Package is installed and can be imported/used successfully.",
        todos=("Verify Node.js is installed", "Install the package", "Verify installation"),
        steps=(
            (
                "Prerequisites",
                "You need to have Node.js installed. Verify your Node.js version:",
                (("bash", "node --version", None),),
            ),
            (
                "Install the package",
                "Install using your preferred package manager.",
                (
                    ("bash", "npm install package-name", "Using npm"),
                    ("bash", "yarn add package-name", "Using yarn"),
                    ("bash", "pnpm add package-name", "Using pnpm"),
                ),
            ),
            (
                "Verify installation",
                "Verify the package was installed correctly:",
                (("bash", "npm list package-name", None),),
            ),
        ),
    ),
    "cli": InstallMdTemplate(
        name="CLI Tool",
        description="For command-line interface tools",
        objective="Install the CLI tool and make it available globally.",
        done_when="CLI is accessible from any terminal and --help shows usage.",
        todos=(
            "Check system requirements",
            "Install the CLI globally",
            "Verify CLI is in PATH",
            "Test basic commands",
        ),
        steps=(
            ("Prerequisites", "Ensure you have the required dependencies installed.", ()),
            (
                "Install the CLI",
                "Install the CLI tool globally:",
                (("bash", "npm install -g cli-name", None),),
            ),
            (
                "Verify installation",
                "Check that the CLI is installed and accessible:",
                (("bash", "cli-name --version", None), ("bash", "cli-name --help", None)),
            ),
        ),
    ),
    "python": InstallMdTemplate(
        name="Python Package",
        description="For pip installable Python packages",
        objective="Install the Python package and verify it can be imported.",
        done_when="Package can be imported in Python without errors.",
        todos=(
            "Verify Python version",
            "Create virtual environment (recommended)",
            "Install the package",
            "Verify installation",
        ),
        steps=(
            (
                "Prerequisites",
                "You need Python 3.8 or higher. Check your Python version:",
                (("bash", "python --version", None),),
            ),
            (
                "Create virtual environment",
                "It's recommended to use a virtual environment:",
                (
                    (
                        "bash",
                        "python -m venv venv\n"
                        "source venv/bin/activate  # On Windows: venv\\Scripts\\activate",
                        None,
                    ),
                ),
            ),
            (
                "Install the package",
                "Install using pip:",
                (("bash", "pip install package-name", None),),
            ),
            (
                "Verify installation",
                "Verify the package is installed:",
                (
                    ("bash", "pip show package-name", None),
                    ("python", "import package_name\nprint(package_name.__version__)", None),
                ),
            ),
        ),
    ),
    "docker": InstallMdTemplate(
        name="Docker Container",
        description="For Docker-based applications",
        objective="Pull and run the Docker container successfully.",
        done_when="Container is running and accessible on the specified port.",
        todos=(
            "Verify Docker is installed",
            "Pull the Docker image",
            "Run the container",
            "Verify container is running",
        ),
        steps=(
            (
                "Prerequisites",
                "You need Docker installed and running. Verify Docker is available:",
                (("bash", "docker --version\ndocker info", None),),
            ),
            (
                "Pull the image",
                "Pull the Docker image:",
                (("bash", "docker pull image-name:latest", None),),
            ),
            (
                "Run the container",
                "Start the container:",
                (
                    (
                        "bash",
                        "docker run -d -p 8080:8080 --name container-name image-name:latest",
                        None,
                    ),
                ),
            ),
            (
                "Verify container",
                "Check that the container is running:",
                (("bash", "docker ps\ndocker logs container-name", None),),
            ),
        ),
    ),
    "binary": InstallMdTemplate(
        name="Binary Download",
        description="For downloadable binary executables",
        objective="Download and install the binary executable.",
        done_when="Binary is executable and responds to --version flag.",
        todos=(
            "Detect operating system and architecture",
            "Download the appropriate binary",
            "Make binary executable",
            "Move to PATH location",
            "Verify installation",
        ),
        steps=(
            (
                "Detect system",
                "Determine your operating system and architecture:",
                (("bash", "uname -s  # OS\nuname -m  # Architecture", None),),
            ),
            (
                "Download binary",
                "Download the appropriate binary for your system:",
                (
                    (
                        "bash",
                        "curl -LO https://example.com/releases/latest/binary-linux-amd64",
                        "Linux (amd64)",
                    ),
                    (
                        "bash",
                        "curl -LO https://example.com/releases/latest/binary-darwin-amd64",
                        "macOS (Intel)",
                    ),
                    (
                        "bash",
                        "curl -LO https://example.com/releases/latest/binary-darwin-arm64",
                        "macOS (Apple Silicon)",
                    ),
                ),
            ),
            (
                "Install binary",
                "Make the binary executable and move it to your PATH:",
                (
                    (
                        "bash",
                        "chmod +x binary-*\nsudo mv binary-* /usr/local/bin/binary-name",
                        None,
                    ),
                ),
            ),
            (
                "Verify installation",
                "Check that the binary is installed correctly:",
                (("bash", "binary-name --version", None),),
            ),
        ),
    ),
}


def template_data(
    key: str, product_name: str = "", description: str = ""
) -> InstallMdGeneratorData:
    """Build generator data from a starter template.

    Raises:
        KeyError: If ``key`` is not in :data:`INSTALL_MD_TEMPLATES`.
    """
    template = INSTALL_MD_TEMPLATES[key]
    return InstallMdGeneratorData(
        product_name=product_name,
        description=description,
        objective=template.objective,
        done_when=template.done_when,
        todo_items=[TodoItem(id=new_id(), text=text) for text in template.todos],
        steps=[
            InstallStep(
                id=new_id(),
                title=title,
                description=step_description,
                code_blocks=[
                    CodeBlock(language=lang, code=code, label=label)
                    for lang, code, label in blocks
                ],
            )
            for title, step_description, blocks in template.steps
        ],
    )
