"""Test fixtures package for awsag.

- assignments: sample assignments and collaborator mocks for the validation core
- aws_clients: boto3 client mocks for the Identity Center client

Usage:
    from tests.fixtures.assignments import healthy_azure_client, healthy_aws_client
    from tests.fixtures.aws_clients import mock_aws_client_manager
"""
