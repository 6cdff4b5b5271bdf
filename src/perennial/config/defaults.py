"""Default values shared by configuration loading and the CLI."""

DEFAULT_CONFIG_FILE = "perennial.yaml"

# Environment variable to config path mapping
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "PERENNIAL_STATE_DIR": ("state_dir",),
    "PERENNIAL_WEBHOOK_URL": ("notifications", "webhook_url"),
}

# Applied to every marketplace provider entry when set
MARKETPLACE_ENDPOINT_ENV = "PERENNIAL_MARKETPLACE_ENDPOINT"

# Rough monthly cost of the default workload in display units
MONTHLY_COST_ESTIMATE = 3.5
