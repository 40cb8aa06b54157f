"""Built-in evaluation scenarios for the web code-generation assistant."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Literal, Mapping, Optional

from webgen_eval.services.errors import ScenarioNotFoundError

Category = Literal["ui", "style", "javascript", "complex"]
CATEGORIES: tuple[str, ...] = ("ui", "style", "javascript", "complex")

_FLAG_BITS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


@dataclass(frozen=True, slots=True)
class Scenario:
    """A prompt paired with the observable outcomes a correct answer must show.

    Each entry of `expected_elements` is a CSS selector; a selector group such as
    ``".a, #b"`` is satisfied when any of its members matches. Case rules for
    `expected_patterns` are carried by each compiled pattern's flags.
    """

    id: str
    name: str
    category: Category
    prompt: str
    setup_files: Mapping[str, str] = field(default_factory=dict, hash=False)
    expected_elements: tuple[str, ...] = ()
    expected_patterns: tuple[re.Pattern[str], ...] = ()
    timeout: Optional[int] = None

    def __post_init__(self) -> None:
        if self.category not in CATEGORIES:
            raise ValueError(f"unknown scenario category '{self.category}'")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("scenario timeout must be positive")
        object.__setattr__(self, "setup_files", MappingProxyType(dict(self.setup_files)))
        object.__setattr__(self, "expected_elements", tuple(self.expected_elements))
        object.__setattr__(
            self,
            "expected_patterns",
            tuple(compile_pattern(p) for p in self.expected_patterns),
        )


class ScenarioRegistry:
    """Read-only catalog with id and category indices built once."""

    def __init__(self, scenarios: Iterable[Scenario]):
        self._scenarios: tuple[Scenario, ...] = tuple(scenarios)
        by_id: dict[str, Scenario] = {}
        by_category: dict[str, list[Scenario]] = {}
        for scenario in self._scenarios:
            if scenario.id in by_id:
                raise ValueError(f"duplicate scenario id '{scenario.id}'")
            by_id[scenario.id] = scenario
            by_category.setdefault(scenario.category, []).append(scenario)
        self._by_id = MappingProxyType(by_id)
        self._by_category = MappingProxyType({k: tuple(v) for k, v in by_category.items()})

    def __len__(self) -> int:
        return len(self._scenarios)

    def __iter__(self) -> Iterator[Scenario]:
        return iter(self._scenarios)

    def __contains__(self, scenario_id: object) -> bool:
        return scenario_id in self._by_id

    def list_all(self) -> tuple[Scenario, ...]:
        return self._scenarios

    def by_category(self, category: str) -> tuple[Scenario, ...]:
        return self._by_category.get(category, ())

    def get(self, scenario_id: str) -> Optional[Scenario]:
        return self._by_id.get(scenario_id)

    def by_id(self, scenario_id: str) -> Scenario:
        scenario = self.get(scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(f"scenario '{scenario_id}' not found")
        return scenario

    def extended(self, extra: Iterable[Scenario]) -> "ScenarioRegistry":
        return ScenarioRegistry([*self._scenarios, *extra])


def compile_pattern(value: Any) -> re.Pattern[str]:
    """Accept a compiled pattern, ``"/source/flags"`` or ``{"source", "flags"}``."""

    if isinstance(value, re.Pattern):
        return value
    if isinstance(value, dict):
        return _compile(str(value.get("source", "")), str(value.get("flags", "")))
    if isinstance(value, str):
        match = re.fullmatch(r"/(.*)/([a-z]*)", value, re.DOTALL)
        if match:
            return _compile(match.group(1), match.group(2))
        return re.compile(value)
    raise TypeError(f"cannot build a pattern from {type(value).__name__}")


def _compile(source: str, flags: str) -> re.Pattern[str]:
    bits = 0
    for flag in flags:
        if flag in _FLAG_BITS:
            bits |= _FLAG_BITS[flag]
        elif flag not in "gu":
            raise ValueError(f"unsupported pattern flag '{flag}'")
    return re.compile(source, bits)


BASIC_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Test App</title>
    <style>
        * {
            margin: 0;
            padding: 0;
            box-sizing: border-box;
        }
        body {
            font-family: Arial, sans-serif;
            line-height: 1.6;
        }
        nav {
            background: #333;
            color: white;
            padding: 1rem;
        }
        nav ul {
            list-style: none;
            display: flex;
            gap: 2rem;
        }
        nav a {
            color: white;
            text-decoration: none;
        }
        main {
            padding: 2rem;
        }
    </style>
</head>
<body>
    <nav>
        <ul>
            <li><a href="#home">Home</a></li>
            <li><a href="#about">About</a></li>
            <li><a href="#services">Services</a></li>
            <li><a href="#contact">Contact</a></li>
        </ul>
    </nav>
    <main>
        <h1>Welcome to Test App</h1>
        <p>This is a test application for validating code generation.</p>
    </main>
    <script>
        // console.log('App loaded');
    </script>
</body>
</html>"""

BASIC_CSS = """/* Additional styles */
.container {
    max-width: 1200px;
    margin: 0 auto;
    padding: 0 20px;
}

.btn {
    display: inline-block;
    padding: 10px 20px;
    background: #007bff;
    color: white;
    text-decoration: none;
    border-radius: 5px;
    border: none;
    cursor: pointer;
}

.btn:hover {
    background: #0056b3;
}"""

BASIC_JS = """
document.addEventListener('DOMContentLoaded', function() {
    const navLinks = document.querySelectorAll('nav a');
    navLinks.forEach(link => {
        link.addEventListener('click', function(e) {
            e.preventDefault();
        });
    });
});"""

_FULL_SITE = {"/index.html": BASIC_HTML, "/styles.css": BASIC_CSS, "/script.js": BASIC_JS}
_STYLED_SITE = {"/index.html": BASIC_HTML, "/styles.css": BASIC_CSS}
_SCRIPTED_SITE = {"/index.html": BASIC_HTML, "/script.js": BASIC_JS}

QUICK_SCENARIO_IDS: tuple[str, ...] = (
    "style-background-gradient",
    "ui-hamburger-menu",
    "js-countdown-timer",
)


def default_scenarios() -> list[Scenario]:
    """Return the built-in scenarios covering representative tasks."""

    return [
        Scenario(
            id="ui-hamburger-menu",
            name="Add hamburger menu to navbar",
            category="ui",
            prompt=(
                "Add a mobile hamburger menu to the navbar. The hamburger should appear on screens "
                "smaller than 768px and toggle the navigation menu visibility when clicked."
            ),
            setup_files=_FULL_SITE,
            expected_elements=(".hamburger",),
            expected_patterns=(
                re.compile(r"hamburger|menu-toggle|mobile-menu", re.I),
                re.compile(r"@media.*max-width.*768px"),
                re.compile(r"addEventListener.*click"),
            ),
        ),
        Scenario(
            id="ui-modal-dialog",
            name="Create modal dialog",
            category="ui",
            prompt=(
                "Create a modal dialog that can be opened with a button click. The modal should have "
                "a close button and clicking outside the modal should also close it."
            ),
            setup_files=_FULL_SITE,
            expected_elements=(".modal", ".modal-content"),
            expected_patterns=(
                re.compile(r"modal", re.I),
                re.compile(r"display:\s*(none|block|flex)"),
                re.compile(r"addEventListener.*click"),
                re.compile(r"close|dismiss", re.I),
            ),
        ),
        Scenario(
            id="ui-contact-form",
            name="Add contact form with validation",
            category="ui",
            prompt=(
                "Add a contact form with fields for name, email, and message. Include client-side "
                "validation for required fields and email format."
            ),
            setup_files=_FULL_SITE,
            expected_elements=(
                "form",
                'input[type="text"]',
                'input[type="email"]',
                "textarea",
                'button[type="submit"]',
            ),
            expected_patterns=(
                re.compile(r"<form", re.I),
                re.compile(r'input.*type="email"', re.I),
                re.compile(r"textarea", re.I),
                re.compile(r"required", re.I),
                re.compile(r"validation|validate", re.I),
            ),
        ),
        Scenario(
            id="ui-dropdown-menu",
            name="Create dropdown menu",
            category="ui",
            prompt=(
                'Create a dropdown menu for the navigation. When hovering over "Services" link, show '
                "a dropdown with options: Web Design, Development, and Consulting."
            ),
            setup_files=_FULL_SITE,
            expected_elements=(".dropdown",),
            expected_patterns=(
                re.compile(r"dropdown", re.I),
                re.compile(r"hover|mouseenter|mouseover", re.I),
                re.compile(r"Web Design[\s\S]*Development[\s\S]*Consulting", re.I),
            ),
        ),
        Scenario(
            id="ui-image-carousel",
            name="Create image carousel",
            category="ui",
            prompt=(
                "Create an image carousel/slider with next and previous buttons. It should display "
                "one image at a time and cycle through 3 placeholder images."
            ),
            setup_files=_FULL_SITE,
            expected_elements=(".carousel",),
            expected_patterns=(
                re.compile(r"carousel|slider", re.I),
                re.compile(r"prev|previous", re.I),
                re.compile(r"next", re.I),
                re.compile(r"addEventListener.*click"),
            ),
        ),
        Scenario(
            id="style-background-gradient",
            name="Change background to gradient",
            category="style",
            prompt="Change the body background to a linear gradient from #ff8c42 to #e65100",
            setup_files=_STYLED_SITE,
            expected_patterns=(
                re.compile(r"linear-gradient", re.I),
                re.compile(r"#ff8c42", re.I),
                re.compile(r"#e65100", re.I),
            ),
        ),
        Scenario(
            id="style-dark-mode",
            name="Add dark mode toggle",
            category="style",
            prompt=(
                "Add a dark mode toggle button that switches the entire page between light and dark "
                "themes. Store the preference in localStorage."
            ),
            setup_files=_FULL_SITE,
            expected_elements=(".dark-mode-toggle, #theme-toggle, .theme-switch",),
            expected_patterns=(
                re.compile(r"dark-mode|dark-theme", re.I),
                re.compile(r"localStorage"),
                re.compile(r"toggle|switch", re.I),
            ),
        ),
        Scenario(
            id="style-responsive-grid",
            name="Create responsive grid layout",
            category="style",
            prompt=(
                "Create a responsive grid layout with 3 columns on desktop, 2 on tablet, and 1 on "
                "mobile. Add 6 card items to demonstrate the layout."
            ),
            setup_files=_STYLED_SITE,
            expected_patterns=(
                re.compile(r"grid|flex", re.I),
                re.compile(r"@media"),
                re.compile(r"card", re.I),
                re.compile(r"column", re.I),
            ),
        ),
        Scenario(
            id="js-fetch-api",
            name="Add API fetch functionality",
            category="javascript",
            prompt=(
                "Add a button that fetches data from https://jsonplaceholder.typicode.com/users and "
                "displays the user names in a list."
            ),
            setup_files=_SCRIPTED_SITE,
            expected_patterns=(
                re.compile(r"fetch", re.I),
                re.compile(r"jsonplaceholder", re.I),
                re.compile(r"async|then", re.I),
                re.compile(r"addEventListener.*click"),
            ),
        ),
        Scenario(
            id="js-countdown-timer",
            name="Create countdown timer",
            category="javascript",
            prompt=(
                "Create a countdown timer that counts down from 60 seconds and displays the remaining "
                "time. Include start, stop, and reset buttons."
            ),
            setup_files=_SCRIPTED_SITE,
            expected_elements=("#timer, .timer-display, .countdown",),
            expected_patterns=(
                re.compile(r"setInterval|setTimeout", re.I),
                re.compile(r"clearInterval|clearTimeout", re.I),
                re.compile(r"start|stop|reset", re.I),
                re.compile(r"countdown|timer", re.I),
            ),
        ),
        Scenario(
            id="complex-todo-list",
            name="Build a todo list application",
            category="complex",
            prompt=(
                "Build a todo list application with the ability to add tasks, mark them as complete, "
                "delete tasks, and filter by all/active/completed. Store tasks in localStorage."
            ),
            setup_files=_FULL_SITE,
            expected_elements=("input", "button", ".todo-item", ".todo-list"),
            expected_patterns=(
                re.compile(r"todo", re.I),
                re.compile(r"localStorage"),
                re.compile(r"add|delete|remove", re.I),
                re.compile(r"complete|done|finished", re.I),
                re.compile(r"filter", re.I),
            ),
            timeout=60_000,
        ),
    ]


def default_registry() -> ScenarioRegistry:
    return ScenarioRegistry(default_scenarios())


def scenario_from_dict(data: Mapping[str, Any]) -> Scenario:
    try:
        return Scenario(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            category=data["category"],
            prompt=str(data["prompt"]),
            setup_files=dict(data.get("setupFiles") or {}),
            expected_elements=tuple(data.get("expectedElements") or ()),
            expected_patterns=tuple(data.get("expectedPatterns") or ()),
            timeout=data.get("timeout"),
        )
    except KeyError as exc:
        raise ValueError(f"scenario is missing required key {exc}") from exc


def load_scenarios(extra_path: str | Path | None = None) -> ScenarioRegistry:
    """Return the built-in registry, optionally extended from a JSON list of scenarios."""

    registry = default_registry()
    if extra_path is None:
        return registry

    path = Path(extra_path)
    if not path.exists():
        return registry

    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list of scenarios")
    return registry.extended(scenario_from_dict(item) for item in raw)
