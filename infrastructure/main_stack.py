"""
Main CDK Stack for the Q&A lookup service.
"""

from aws_cdk import (
    Stack,
    Tags,
    CfnOutput,
    aws_iam as iam,
)
from constructs import Construct

from infrastructure.constructs.data_layer import DataLayerConstruct
from infrastructure.constructs.api_layer import ApiLayerConstruct
from infrastructure.config.settings import Settings


class QALookupStack(Stack):
    """Main stack wiring all constructs together."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Settings,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        Tags.of(self).add("Project", "qa-lookup")
        Tags.of(self).add("Environment", settings.environment)
        Tags.of(self).add("ManagedBy", "cdk")

        data_construct = DataLayerConstruct(
            self,
            "DataLayer",
            environment=settings.environment,
        )

        api_construct = ApiLayerConstruct(
            self,
            "ApiLayer",
            environment=settings.environment,
            lambda_environment={
                "CANDIDATE_BACKEND": "dynamodb",
                "KNOWLEDGE_TABLE": data_construct.knowledge_table.table_name,
                "ANALYTICS_TABLE": data_construct.analytics_table.table_name,
                "EMBEDDING_MODEL_ID": settings.embedding_model_id,
                "EMBEDDINGS_ENABLED": str(settings.embeddings_enabled).lower(),
                "LEXICAL_THRESHOLD": str(settings.lexical_threshold),
                "SEMANTIC_THRESHOLD": str(settings.semantic_threshold),
                "SEMANTIC_STAGED": str(settings.semantic_staged).lower(),
                "CACHE_TTL_SECONDS": str(settings.cache_ttl_seconds),
                "CACHE_MAX_SIZE": str(settings.cache_max_size),
                "ALLOWED_ORIGINS": ",".join(settings.allowed_origins),
            },
            allowed_origins=settings.allowed_origins,
            lambda_memory_mb=settings.lambda_memory_mb,
            lambda_timeout_seconds=settings.lambda_timeout_seconds,
        )

        data_construct.knowledge_table.grant_read_data(api_construct.main_lambda)
        data_construct.analytics_table.grant_write_data(api_construct.main_lambda)

        if settings.embeddings_enabled:
            api_construct.main_lambda.add_to_role_policy(
                iam.PolicyStatement(
                    actions=["bedrock:InvokeModel"],
                    resources=[
                        f"arn:aws:bedrock:{self.region}::foundation-model/"
                        f"{settings.embedding_model_id}"
                    ],
                )
            )

        CfnOutput(self, "ApiEndpoint", value=api_construct.api.api_endpoint)
        CfnOutput(self, "KnowledgeTable", value=data_construct.knowledge_table.table_name)
        CfnOutput(self, "AnalyticsTable", value=data_construct.analytics_table.table_name)
