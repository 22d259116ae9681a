"""Production environment configuration."""

import os

prod_config = {
    "project": {
        "name": "acme-app",
        "environment": "prod",
        "region": "us-west-2",
        "account_id": os.environ.get("CDK_DEFAULT_ACCOUNT"),
        "domain": "acme.com",
        "cloudfront": True,
        "s3": True,
        "bastion": False,
        "alarm_email": "platform-alerts@acme.dev",
        "tags": {
            "Environment": "prod",
            "Project": "AcmeApp",
            "Owner": "PlatformTeam",
            "CostCenter": "Production",
        },
    },
    "defaults": {
        "runtime": "nodejs22.x",
        "timeout": 30,
        "memory_size": 1024,
        "kms": True,
        "environment": {
            "region": True,
            "node": "production",
            "s3": True,
            "variables": {"LOG_LEVEL": "warn"},
        },
        "secrets": {"SENTRY_DSN": "sentry:dsn"},
        "permissions": {"s3": True},
        "network_access": [{"protocol": "tcp", "ports": [443], "cidrs": ["0.0.0.0/0"]}],
    },
    "services": {
        "web": {
            "image": "public.ecr.aws/acme/web:stable",
            "cpu": 1024,
            "memory": 2048,
            "desired_count": 3,
            "http": {"port": 3000, "subdomain": "www"},
        },
        "api": {
            "source": "apps/api",
            "cpu": 1024,
            "memory": 2048,
            "desired_count": 3,
            "http": {"port": 4000, "subdomain": "api", "cors": True, "health_check_path": "/health"},
            "environment": {"database": True},
            "secrets": {"STRIPE_KEY": "stripe:secretKey"},
            "permissions": {
                "ses": True,
                "statements": [
                    {"actions": ["sqs:SendMessage"], "resources": ["arn:aws:sqs:us-west-2:*:acme-app-prod-*"]},
                ],
            },
        },
    },
    "lambdas": {
        "webhook": {
            "source": "functions/webhook",
            "triggers": {"http": {"path_pattern": "/hooks/*"}},
            "secrets": {"STRIPE_WEBHOOK_SECRET": "stripe:webhookSecret"},
        },
        "cron": {
            "source": "functions/cron",
            "timeout": 300,
            "environment": {"database": True},
            "triggers": {"schedule": "cron(0 3 * * ? *)"},
        },
        "ingest": {
            "source": "functions/ingest",
            "memory_size": 2048,
            "timeout": 120,
            "triggers": {"sqs": {"batch_size": 10}, "s3": {"prefix": "uploads/"}},
        },
    },
}
