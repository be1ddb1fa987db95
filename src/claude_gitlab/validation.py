"""Provider and credential validation for GitLab CI jobs."""

from __future__ import annotations

import logging

from claude_gitlab.config import GitLabContext, ProviderSettings, Settings
from claude_gitlab.errors import EnvironmentValidationError

logger = logging.getLogger(__name__)


def validate_environment(settings: Settings) -> None:
    """Raise `EnvironmentValidationError` listing every configuration problem found."""

    errors = _provider_errors(settings.provider)
    errors.extend(_gitlab_errors(settings.gitlab))
    if errors:
        raise EnvironmentValidationError(errors)


def _provider_errors(provider: ProviderSettings) -> list[str]:
    errors: list[str] = []

    if provider.use_bedrock and provider.use_vertex:
        errors.append(
            "Cannot use both Bedrock and Vertex AI simultaneously. "
            "Please set only one provider (CLAUDE_USE_BEDROCK or CLAUDE_USE_VERTEX).",
        )

    if not provider.use_bedrock and not provider.use_vertex:
        if not provider.anthropic_api_key and not provider.oauth_token:
            errors.append(
                "Either ANTHROPIC_API_KEY or CLAUDE_CODE_OAUTH_TOKEN is required "
                "when using direct Anthropic API.",
            )
        return errors

    if provider.use_bedrock:
        required = {
            "AWS_REGION": provider.aws_region,
            "AWS_ACCESS_KEY_ID": provider.aws_access_key_id,
            "AWS_SECRET_ACCESS_KEY": provider.aws_secret_access_key,
        }
        errors.extend(
            f"{name} is required when using AWS Bedrock (CLAUDE_USE_BEDROCK=true)."
            for name, value in required.items()
            if not value
        )
        # OIDC exchange is left to the assistant tool; only availability is reported.
        if not provider.aws_access_key_id and provider.oidc_token:
            logger.info("Using GitLab OIDC token for AWS authentication")
    elif provider.use_vertex:
        required = {
            "ANTHROPIC_VERTEX_PROJECT_ID": provider.vertex_project_id,
            "CLOUD_ML_REGION": provider.cloud_ml_region,
        }
        errors.extend(
            f"{name} is required when using Google Vertex AI (CLAUDE_USE_VERTEX=true)."
            for name, value in required.items()
            if not value
        )
        if not provider.google_application_credentials and provider.oidc_token:
            logger.info("Using GitLab OIDC token for GCP authentication")

    return errors


def _gitlab_errors(gitlab: GitLabContext) -> list[str]:
    if not gitlab.ci_mode:
        return []

    errors: list[str] = []
    if not gitlab.project_dir:
        errors.append("CI_PROJECT_DIR is required in GitLab CI environment.")

    logger.info("Running in GitLab CI mode")
    logger.info("Project: %s", gitlab.project_path)
    logger.info("Pipeline: %s", gitlab.pipeline_id)
    logger.info("Job: %s", gitlab.job_name)
    return errors
