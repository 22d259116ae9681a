"""Development environment configuration."""

import os

dev_config = {
    "project": {
        "name": "acme-app",
        "environment": "dev",
        "region": "us-west-2",
        "account_id": os.environ.get("CDK_DEFAULT_ACCOUNT"),
        "domain": "dev-acme.com",
        "s3": True,
        "bastion": True,
        "tags": {
            "Environment": "dev",
            "Project": "AcmeApp",
            "Owner": "PlatformTeam",
        },
    },
    "defaults": {
        "runtime": "nodejs22.x",
        "timeout": 30,
        "memory_size": 256,
        "environment": {
            "region": True,
            "node": True,
            "s3": True,
            "variables": {"LOG_LEVEL": "debug"},
        },
        "secrets": {"SENTRY_DSN": "sentry:dsn"},
        "permissions": {"s3": True},
        # Lambda functions may reach HTTPS endpoints anywhere
        "network_access": [{"protocol": "tcp", "ports": [443], "cidrs": ["0.0.0.0/0"]}],
    },
    "services": {
        "web": {
            "source": "apps/web",
            "http": {"port": 3000, "subdomain": "app"},
        },
        "api": {
            "source": "apps/api",
            "http": {"port": 4000, "path_pattern": "/api/*", "health_check_path": "/api/health"},
            "environment": {"database": True},
            "permissions": {"ses": True},
        },
    },
    "lambdas": {
        "webhook": {
            "source": "functions/webhook",
            "triggers": {"http": {"path_pattern": "/hooks/*"}},
        },
        "cron": {
            "source": "functions/cron",
            "timeout": 300,
            "environment": {"database": True},
            "triggers": {"schedule": "rate(1 hour)"},
        },
    },
}
