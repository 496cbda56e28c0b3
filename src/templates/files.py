# src/templates/files.py — v1
"""Configuration file bodies as data.

Placeholders use the "@@" delimiter (e.g. @@domain or @@{domain}) so that
nginx variables, shell expansions and braces pass through untouched.
Rendering is strict: a missing value raises KeyError.
"""

from __future__ import annotations

from string import Template


class FileTemplate(Template):
    delimiter = "@@"


def render(template: str, **values: object) -> str:
    """Render a template body with the given values."""
    return FileTemplate(template).substitute({k: str(v) for k, v in values.items()})


def parse_env_file(text: str) -> dict[str, str]:
    """Parse KEY=VALUE lines, ignoring blanks and comments."""
    result: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        result[key.strip()] = value.strip()
    return result


# === BACKEND ===

ENV_FILE = """\
@@api_key_env_var=@@api_key
DATABASE_URL=postgresql://@@db_user:@@db_password_url@localhost:5432/@@db_name
SECRET_KEY=@@secret_key
ENVIRONMENT=production
DEBUG=False
ALLOWED_ORIGINS=https://@@domain,https://www.@@domain
AWS_S3_BUCKET=@@s3_bucket
AWS_REGION=@@aws_region
"""

BACKEND_APP = '''\
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
from dotenv import load_dotenv

load_dotenv()

app = FastAPI(title="@@app_name API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("ALLOWED_ORIGINS", "").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"service": "@@app_name", "status": "operational"}


@app.get("/api/v1/health")
async def health():
    return {"status": "healthy"}
'''

SYSTEMD_UNIT = """\
[Unit]
Description=@@app_name API
After=network.target postgresql.service

[Service]
Type=simple
User=root
WorkingDirectory=@@app_root
Environment="PATH=@@app_root/venv/bin"
EnvironmentFile=@@app_root/.env
ExecStart=@@app_root/venv/bin/uvicorn @@backend_module:app --host 127.0.0.1 --port @@backend_port
Restart=always

[Install]
WantedBy=multi-user.target
"""

# === FRONTEND ===

LANDING_PAGE = """\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>@@app_name</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
            min-height: 100vh;
            display: flex;
            align-items: center;
            justify-content: center;
            margin: 0;
            padding: 20px;
        }
        .container {
            background: white;
            padding: 60px 40px;
            border-radius: 20px;
            box-shadow: 0 20px 60px rgba(0,0,0,0.3);
            text-align: center;
            max-width: 600px;
        }
        h1 { color: #667eea; margin: 0 0 20px 0; font-size: 36px; }
        p { color: #4a5568; line-height: 1.8; margin: 0 0 30px 0; }
        .status {
            display: inline-block;
            padding: 12px 24px;
            background: #48bb78;
            color: white;
            border-radius: 8px;
            font-weight: 600;
        }
    </style>
</head>
<body>
    <div class="container">
        <h1>@@app_name</h1>
        <p>Your application is now deployed!</p>
        <div class="status">System Operational</div>
        <p style="margin-top: 30px; font-size: 14px; color: #a0aec0;">
            Replace this page with your full application frontend.
        </p>
    </div>
</body>
</html>
"""

# === REVERSE PROXY ===

_PROXY_LOCATIONS = """\
    location / {
        root @@frontend_root;
        try_files $uri $uri/ /index.html;
    }

    location /api/ {
        proxy_pass http://@@upstream;
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection 'upgrade';
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_cache_bypass $http_upgrade;

        proxy_connect_timeout 60s;
        proxy_send_timeout 60s;
        proxy_read_timeout 60s;
    }

    client_max_body_size 10M;
"""

_ACME_LOCATION = """\
    location ~ /.well-known {
        allow all;
        root @@frontend_root;
    }
"""

NGINX_SITE = (
    """\
upstream @@upstream {
    server 127.0.0.1:@@backend_port;
}

server {
    listen 80;
    server_name @@domain www.@@domain;

"""
    + _ACME_LOCATION
    + "\n"
    + _PROXY_LOCATIONS
    + "}\n"
)

NGINX_SITE_TLS = (
    """\
upstream @@upstream {
    server 127.0.0.1:@@backend_port;
}

server {
    listen 80;
    server_name @@domain www.@@domain;

"""
    + _ACME_LOCATION
    + """
    location / {
        return 301 https://$host$request_uri;
    }
}

server {
    listen 443 ssl http2;
    server_name @@domain www.@@domain;

    ssl_certificate @@cert_dir/fullchain.pem;
    ssl_certificate_key @@cert_dir/privkey.pem;
    ssl_protocols TLSv1.2 TLSv1.3;
    ssl_prefer_server_ciphers on;
    ssl_session_cache shared:SSL:10m;

"""
    + _PROXY_LOCATIONS
    + "}\n"
)

# === DATABASE ===

# Fed to `psql -v ON_ERROR_STOP=1` on stdin. Safe to run repeatedly.
DATABASE_SQL = """\
BEGIN;
DO $do$
BEGIN
    IF EXISTS (SELECT FROM pg_catalog.pg_roles WHERE rolname = '@@db_user') THEN
        ALTER ROLE "@@db_user" WITH LOGIN PASSWORD '@@db_password_sql';
    ELSE
        CREATE ROLE "@@db_user" WITH LOGIN PASSWORD '@@db_password_sql';
    END IF;
END
$do$;
COMMIT;
SELECT 'CREATE DATABASE "@@db_name" OWNER "@@db_user"'
WHERE NOT EXISTS (SELECT FROM pg_database WHERE datname = '@@db_name')\\gexec
GRANT ALL PRIVILEGES ON DATABASE "@@db_name" TO "@@db_user";
"""

# === BACKUPS ===

BACKUP_SCRIPT = """\
#!/bin/bash
set -euo pipefail
DATE=$(date +%Y%m%d_%H%M%S)
BACKUP_DIR="@@backup_dir"
mkdir -p "$BACKUP_DIR"
sudo -u postgres pg_dump @@db_name > "$BACKUP_DIR/db_$DATE.sql"
tar -czf "$BACKUP_DIR/app_$DATE.tar.gz" @@app_root
find "$BACKUP_DIR" -name "*.sql" -mtime +@@retention_days -delete
find "$BACKUP_DIR" -name "*.tar.gz" -mtime +@@retention_days -delete
"""
