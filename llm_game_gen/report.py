"""HTML catalog of cached games."""
from pathlib import Path
from jinja2 import Template

from .cache import ArtifactCache
from .store import atomic_write_bytes

TEMPLATE = """<!DOCTYPE html>
<html lang=\"en\">
<head>
<meta charset=\"UTF-8\" />
<title>Generated Games</title>
<style>
body { font-family: system-ui, sans-serif; line-height:1.4; }
table { border-collapse: collapse; width: 100%; }
th, td { border:1px solid #ccc; padding:4px 6px; vertical-align: top; }
th { background:#f2f2f2; }
code { font-size: 0.85rem; }
header, main, footer { max-width: 1200px; margin: 0 auto; }
header:focus-within a.skip-link { top: 0; }
a.skip-link { position:absolute; left:0; top:-40px; background:#000; color:#fff; padding:8px; }
</style>
</head>
<body>
<a href=\"#main\" class=\"skip-link\">Skip to main content</a>
<header>
<h1>Generated Games</h1>
<p>Storage: <code>{{ stats.directory }}</code></p>
<p>{{ stats.cached_games }} cached game{{ '' if stats.cached_games == 1 else 's' }}, {{ stats.total_size_mb }} MB total</p>
</header>
<main id=\"main\">
<section aria-labelledby=\"games-h2\">
<h2 id=\"games-h2\">Cached Games</h2>
{% if entries %}
<table>
<caption>Most recently created first</caption>
<thead>
<tr><th scope=\"col\">Game</th><th scope=\"col\">Id</th><th scope=\"col\">Size (KB)</th><th scope=\"col\">Model</th><th scope=\"col\">Created</th><th scope=\"col\">Last Accessed</th></tr>
</thead>
<tbody>
{% for e in entries %}
<tr>
  <th scope=\"row\"><a href=\"{{ base_url }}/play/{{ e.id | urlencode }}\">{{ e.label }}</a></th>
  <td><code>{{ e.id }}</code></td>
  <td>{{ e.size_kb }}</td>
  <td>{{ e.produced_by.split('/')[-1] }}</td>
  <td>{{ e.created_at.strftime('%Y-%m-%d %H:%M') }}</td>
  <td>{{ e.last_accessed_at.strftime('%Y-%m-%d %H:%M') }}</td>
</tr>
{% endfor %}
</tbody>
</table>
{% else %}
<p>No games have been generated yet.</p>
{% endif %}
</section>
</main>
</body>
</html>
"""


def render_catalog(cache: ArtifactCache, out_html: Path, base_url: str = ""):
    entries = sorted(cache.list_entries(), key=lambda e: e.created_at, reverse=True)
    html = Template(TEMPLATE, autoescape=True).render(
        stats=cache.stats(),
        entries=entries,
        base_url=base_url.rstrip("/"),
    )
    atomic_write_bytes(Path(out_html), html.encode("utf-8"))
    return out_html
