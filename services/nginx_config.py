"""
Nginx configuration suggestion

Renders the server block that lets nginx serve the web root directly and
hand everything else (dynamic routes, /ask, the admin API) to the app.
Nothing is written to /etc/nginx; the operator installs the block.
"""

import logging

logger = logging.getLogger(__name__)


def render_site_config(domain, port, web_root):
    """Server block for domain, proxying to the app on localhost:port"""

    nginx_config = f"""server {{
    listen 80;
    server_name {domain} www.{domain};

    root {web_root};

    # Discovery files written as static files are served from disk,
    # anything missing falls through to the app
    location / {{
        try_files $uri @app;
    }}

    location = /ask {{
        proxy_pass http://localhost:{port};
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;

        # Timeouts
        proxy_connect_timeout 60s;
        proxy_send_timeout 60s;
        proxy_read_timeout 60s;
    }}

    location @app {{
        proxy_pass http://localhost:{port};
        proxy_http_version 1.1;
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
    }}
}}"""

    logger.info(f"✅ Nginx config rendered for {domain}")
    return nginx_config
