"""Staging environment configuration."""

import os

staging_config = {
    "project": {
        "name": "acme-app",
        "environment": "staging",
        "region": "us-west-2",
        "account_id": os.environ.get("CDK_DEFAULT_ACCOUNT"),
        "domain": "staging-acme.com",
        "s3": True,
        "bastion": True,
        "alarm_email": "platform-alerts@acme.dev",
        "tags": {
            "Environment": "staging",
            "Project": "AcmeApp",
            "Owner": "PlatformTeam",
        },
    },
    "defaults": {
        "runtime": "nodejs22.x",
        "timeout": 30,
        "memory_size": 512,
        "kms": True,
        "environment": {
            "region": True,
            "node": "production",
            "s3": True,
            "variables": {"LOG_LEVEL": "info"},
        },
        "secrets": {"SENTRY_DSN": "sentry:dsn"},
        "permissions": {"s3": True},
        "network_access": [{"protocol": "tcp", "ports": [443], "cidrs": ["0.0.0.0/0"]}],
    },
    "services": {
        "web": {
            "source": "apps/web",
            "desired_count": 2,
            "http": {"port": 3000, "subdomain": "app"},
        },
        "api": {
            "source": "apps/api",
            "desired_count": 2,
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
        "ingest": {
            "source": "functions/ingest",
            "memory_size": 1024,
            "triggers": {"sqs": {"batch_size": 5}},
        },
    },
}
