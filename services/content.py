"""
services/content.py

Content generators for the discovery endpoints.

Every generator takes a SiteInfo and returns the exact bytes to serve.
Output is deterministic for a given configuration: timestamps come from
SiteInfo.generated_at (when the settings last changed) rather than the
clock, so re-installing unchanged content never rewrites anything.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any
from datetime import date
from urllib.parse import urlparse

import requests

from config.settings import CONFIG
from services import robots

logger = logging.getLogger(__name__)

GENERATOR_NAME = "ai-discovery-host"
SETTINGS_OPTION = "site_settings"

SETTINGS_FIELDS = (
    "business_name",
    "business_description",
    "logo_url",
    "contact_email",
    "legal_info_url",
    "custom_ai_plugin_url",
    "client_id",
    "robots_base",
)


@dataclass
class SiteInfo:
    site_url: str
    site_name: str = ""
    admin_email: str = ""
    business_name: str = ""
    business_description: str = ""
    logo_url: str = ""
    contact_email: str = ""
    legal_info_url: str = ""
    custom_ai_plugin_url: str = ""
    client_id: str = ""
    robots_base: str = ""
    generated_at: str = ""
    # HTTP client for the custom manifest, the requests module by default
    http: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def load(cls, store, config=None, http=None):
        """Site details from configuration, business info from the option store"""
        config = config or CONFIG
        settings = store.get(SETTINGS_OPTION) or {}
        generated_at = (
            store.get("settings_updated_at")
            or store.get("activated_at")
            or date.today().isoformat()
        )
        return cls(
            site_url=config["site_url"].rstrip("/"),
            site_name=config.get("site_name", ""),
            admin_email=config.get("admin_email", ""),
            generated_at=generated_at,
            http=http,
            **{key: settings.get(key) or "" for key in SETTINGS_FIELDS},
        )

    @property
    def domain(self):
        return urlparse(self.site_url).hostname or ""

    @property
    def display_name(self):
        if self.business_name:
            return self.business_name
        if self.site_name:
            return self.site_name
        name = self.domain
        for part in (".com", ".net", ".org", "www."):
            name = name.replace(part, "")
        return name.replace("-", " ").replace(".", " ").title()

    @property
    def email(self):
        return self.contact_email or self.admin_email


def _dump_json(data) -> bytes:
    return (json.dumps(data, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def model_name(name):
    """'The Knollcroft Inn' -> 'the_knollcroft_inn_assistant'"""
    slug = re.sub(r"[\s\-.]+", "_", name.strip().lower())
    slug = re.sub(r"[^a-z0-9_]", "", slug)
    return f"{slug}_assistant"


def generate_ai_plugin(site: SiteInfo) -> bytes:
    """ai-plugin.json manifest, or the operator's own manifest when configured"""
    if site.custom_ai_plugin_url:
        try:
            response = (site.http or requests).get(site.custom_ai_plugin_url, timeout=10)
            response.raise_for_status()
            return response.content
        except requests.exceptions.RequestException as e:
            logger.warning(
                f"⚠️  Custom ai-plugin.json unavailable ({site.custom_ai_plugin_url}): {e} "
                f"- serving generated manifest"
            )

    name = site.display_name
    description = site.business_description or (
        f"Get information about {name} including amenities, pricing, availability, "
        f"and booking assistance."
    )
    manifest = {
        "schema_version": "v1",
        "name_for_human": f"{name} AI Assistant",
        "name_for_model": model_name(name),
        "description_for_human": description,
        "description_for_model": (
            f"Provides information for {name} including availability, pricing, "
            f"amenities, policies, and booking assistance."
        ),
        "auth": {"type": "none"},
        "api": {"type": "openapi", "url": f"{site.site_url}/ask"},
        "logo_url": site.logo_url or f"{site.site_url}/logo.png",
        "contact_email": site.email,
        "legal_info_url": site.legal_info_url or f"{site.site_url}/privacy-policy",
        "_generated_by": GENERATOR_NAME,
        "_generated_at": site.generated_at,
        "_generation_method": "settings",
    }
    return _dump_json(manifest)


def generate_mcp_servers(site: SiteInfo) -> bytes:
    name = site.display_name
    servers = {
        "schema_version": "1.0",
        "last_updated": site.generated_at,
        "publisher": {
            "name": name,
            "url": site.site_url,
            "contact_email": site.email,
        },
        "servers": [
            {
                "name": f"{name} Assistant",
                "description": "Business information and booking assistance",
                "url": f"{site.site_url}/ask",
                "type": "business_assistant",
                "version": "1.0",
                "capabilities": [
                    "availability",
                    "pricing_information",
                    "amenities_information",
                    "booking_assistance",
                    "general_inquiries",
                ],
                "authentication": {"type": "none"},
                "trusted": True,
            }
        ],
        "metadata": {
            "total_servers": 1,
            "_generated_by": GENERATOR_NAME,
            "_generation_method": "settings",
            "_generated_at": site.generated_at,
        },
    }
    return _dump_json(servers)


def generate_llms(site: SiteInfo) -> bytes:
    name = site.display_name
    url = site.site_url
    text = f"""# LLMS.txt - Large Language Model Policy
# Site: {name}
# URL: {url}
# Contact: {site.email}
# Last Updated: {site.generated_at}

## About This Site
This is {name}, providing information about its services, amenities, and bookings.

## AI/LLM Usage Policy
- AI models are welcome to access public content for informational purposes
- Please respect our robots.txt directives
- Commercial scraping requires permission

## Available AI Endpoints
- AI Plugin Discovery: {url}/.well-known/ai-plugin.json
- MCP Server Discovery: {url}/.well-known/mcp/servers.json
- API Endpoint: {url}/ask
- This Policy: {url}/llms.txt

## Contact Information
For AI/LLM integration questions: {site.email}
Website: {url}

---
Generated by {GENERATOR_NAME}
"""
    return text.encode("utf-8")


def generate_robots(site: SiteInfo) -> bytes:
    """Full robots.txt: the configured base output followed by our section"""
    base = site.robots_base or robots.default_robots(site.site_url)
    return robots.enhance(base, site.site_url).encode("utf-8")
