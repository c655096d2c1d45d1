"""Prompt construction from a game design document."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping

from jinja2 import Template

SYSTEM_PROMPT = (
    "You are generating a single standalone HTML document. "
    "Do NOT wrap output in markdown fences. Include <head> and <body>. "
    "Do NOT explain the code, just output it."
)

# Tiny prompt used to check that a model answers at all
PROBE_PROMPT = "test"

MAX_PROMPT_UNITS = 6

GAME_PROMPT = Template(
    """Create a STUNNING, PROFESSIONAL, FULL-SCREEN strategy game in a single HTML file.

Game: {{ s.project_name }}
Genre: {{ s.genre }}
Factions: {{ s.factions | join(', ') if s.factions else 'Standard' }}
Resources: {{ s.resources | join(', ') if s.resources else 'Gold, Energy' }}
Units: {{ s.units[:max_units] | join(', ') if s.units else 'Infantry, Tank' }}

REQUIREMENTS:
- Full-screen layout (100vw x 100vh, no scrollbars)
- Professional dark theme with gradients
- Top bar (60px): Resources + Timer
- Main area (70%): Canvas/Grid gameplay
- Right panel (30%): Build menu
- Bottom bar (80px): Actions
- Smooth animations and effects
- Working resource system
- Buildable units with stats
- Combat system
- Win/loss detection
- Sound effects (Web Audio)
- Mobile responsive

Return ONLY valid HTML (no markdown, no explanations). Start with <!DOCTYPE html> and end with </html>."""
)


def _section(design: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = design.get(key)
    return value if isinstance(value, Mapping) else {}


def _names(items: Any, key: str) -> List[str]:
    """Collect ``item[key]`` from a list of dicts, skipping anything malformed."""
    if not isinstance(items, list):
        return []
    out = []
    for item in items:
        if isinstance(item, Mapping) and item.get(key):
            out.append(str(item[key]))
    return out


def design_summary(design: Mapping[str, Any]) -> Dict[str, Any]:
    """Pull the few fields the prompt and the stats need out of a design.

    Everything else in the design document is ignored. Missing or
    malformed sections fall back to empty values.
    """
    spec = _section(design, "game_design_spec")
    balancing = _section(design, "balancing")
    economy = _section(spec, "economy")
    factions = spec.get("factions")
    units = balancing.get("units")
    return {
        "project_name": _section(design, "metadata").get("project_name") or None,
        "genre": _section(design, "inputs").get("genre") or "RTS",
        "factions": _names(factions, "name"),
        "resources": _names(economy.get("resources"), "name"),
        "units": _names(units, "unit_name"),
        "faction_count": len(factions) if isinstance(factions, list) else 0,
        "unit_count": len(units) if isinstance(units, list) else 0,
    }


def build_game_prompt(design: Mapping[str, Any]) -> str:
    summary = dict(design_summary(design))
    summary["project_name"] = summary["project_name"] or "Strategy Game"
    return GAME_PROMPT.render(s=summary, max_units=MAX_PROMPT_UNITS)


__all__ = ["SYSTEM_PROMPT", "PROBE_PROMPT", "build_game_prompt", "design_summary"]
