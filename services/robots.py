"""
robots.txt AI discovery section.

The section is delimited by BEGIN/END markers so it can be re-applied or
stripped without touching anything else in the file.
"""

import re

SECTION_BEGIN = "# BEGIN AI Discovery"
SECTION_END = "# END AI Discovery"

_SECTION_PATTERN = re.compile(
    r"\n*" + re.escape(SECTION_BEGIN) + r".*?" + re.escape(SECTION_END) + r"[ \t]*\n?",
    re.DOTALL,
)

DISCOVERY_PATHS = (
    "/ask",
    "/.well-known/ai-plugin.json",
    "/.well-known/mcp/servers.json",
    "/llms.txt",
)


def default_robots(site_url):
    """robots.txt a WordPress site answers with when nothing else is configured"""
    return (
        "User-agent: *\n"
        "Disallow: /wp-admin/\n"
        "Allow: /wp-admin/admin-ajax.php\n"
        "\n"
        f"Sitemap: {site_url}/wp-sitemap.xml\n"
    )


def ai_section(site_url):
    lines = [SECTION_BEGIN, "User-agent: *"]
    lines += [f"Allow: {path}" for path in DISCOVERY_PATHS]
    lines += [
        "",
        "# AI Plugin: " + site_url + "/.well-known/ai-plugin.json",
        "# MCP Servers: " + site_url + "/.well-known/mcp/servers.json",
        "# API Endpoint: " + site_url + "/ask",
        "# LLMS Policy: " + site_url + "/llms.txt",
        SECTION_END,
    ]
    return "\n".join(lines) + "\n"


def has_section(text):
    return SECTION_BEGIN in text and SECTION_END in text


def strip_section(text):
    """Remove our section, leaving the rest of the file as it was"""
    return _SECTION_PATTERN.sub("\n", text).strip("\n") + "\n" if has_section(text) else text


def enhance(existing, site_url):
    """Append (or refresh) our section after the existing robots output"""
    base = strip_section(existing).rstrip()
    if not base:
        return ai_section(site_url)
    return base + "\n\n" + ai_section(site_url)
