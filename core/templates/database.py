"""Postgres instance whose credentials live in a generated secret."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.constants import ResourceKind
from core.models import Join
from core.registry.stack import ResourceHandle, Stack


@dataclass(slots=True)
class DatabaseProps:
    database_name: str = "appdb"
    username: str = "postgres"
    engine_version: str = "13.7"
    instance_class: str = "db.t3.micro"
    allocated_storage: int = 30
    backup_window: str = "03:00-04:00"
    maintenance_window: str = "sun:05:00-sun:06:00"
    vpc_cidr: str = "10.0.0.0/16"

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "DatabaseProps":
        defaults = cls()
        return cls(
            database_name=data.get("database_name", defaults.database_name),
            username=data.get("username", defaults.username),
            engine_version=str(data.get("engine_version", defaults.engine_version)),
            instance_class=data.get("instance_class", defaults.instance_class),
            allocated_storage=int(data.get("allocated_storage", defaults.allocated_storage)),
            backup_window=data.get("backup_window", defaults.backup_window),
            maintenance_window=data.get("maintenance_window", defaults.maintenance_window),
            vpc_cidr=data.get("vpc_cidr", defaults.vpc_cidr),
        )


def build_database(stack: Stack, props: DatabaseProps) -> dict[str, ResourceHandle]:
    vpc = stack.declare(ResourceKind.VPC, "Vpc", {"CidrBlock": props.vpc_cidr, "MaxAzs": 2})
    security_group = stack.declare(
        ResourceKind.SECURITY_GROUP,
        "DatabaseSecurityGroup",
        {"GroupDescription": f"Access to {props.database_name}", "VpcId": vpc.ref},
    )
    secret = stack.declare(
        ResourceKind.SECRET,
        "DatabaseSecret",
        {
            "Name": f"{props.database_name}-credentials",
            "Description": "Database Credentials",
            "GenerateSecretString": {
                "PasswordLength": 25,
                "ExcludeCharacters": "\\\"'",
                "GenerateStringKey": "password",
                "SecretStringTemplate": f'{{"username":"{props.username}"}}',
            },
        },
    )
    database = stack.declare(
        ResourceKind.DATABASE_INSTANCE,
        "Database",
        {
            "DBInstanceIdentifier": props.database_name,
            "DBName": props.database_name,
            "Engine": "postgres",
            "EngineVersion": props.engine_version,
            "DBInstanceClass": props.instance_class,
            "AllocatedStorage": props.allocated_storage,
            "BackupRetentionPeriod": 30,
            "StorageEncrypted": True,
            "PubliclyAccessible": False,
            "AutoMinorVersionUpgrade": True,
            "AllowMajorVersionUpgrade": False,
            "MonitoringInterval": 60,
            "EnablePerformanceInsights": True,
            "PreferredBackupWindow": props.backup_window,
            "PreferredMaintenanceWindow": props.maintenance_window,
            "MasterUsername": props.username,
            "MasterUserPassword": Join(
                parts=["{{resolve:secretsmanager:", secret.arn, ":SecretString:password}}"]
            ),
            "SubnetIds": vpc.get_output("private_subnet_ids"),
            "VpcSecurityGroupIds": [security_group.get_output("security_group_id")],
        },
    )
    reader = stack.declare(
        ResourceKind.ROLE,
        "DatabaseClientRole",
        {
            "RoleName": f"{props.database_name}-client",
            "AssumeRolePolicyDocument": {
                "Version": "2012-10-17",
                "Statement": [
                    {"Effect": "Allow", "Principal": {"Service": "lambda.amazonaws.com"}, "Action": "sts:AssumeRole"}
                ],
            },
        },
    )
    stack.grant(reader, secret, ["secretsmanager:GetSecretValue"])

    stack.add_output("DatabaseEndpoint", database.get_output("endpoint"))
    stack.add_output("SecretArn", secret.arn)
    return {
        "vpc": vpc,
        "security_group": security_group,
        "secret": secret,
        "database": database,
        "reader": reader,
    }


__all__ = ["DatabaseProps", "build_database"]
