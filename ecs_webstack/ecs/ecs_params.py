#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Constants for the ECS cluster, tasks and services.
"""

# CPU units to valid memory (MiB) values for Fargate tasks
FARGATE_MODES = {
    256: [2**i for i in [9, 10, 11]],
    512: [(2**10) * i for i in range(1, 5)],
    1024: [(2**10) * i for i in range(2, 9)],
    2048: [(2**10) * i for i in range(4, 17)],
    4096: [(2**10) * i for i in range(8, 33)],
    8192: [(2**10) * i for i in range(16, 61, 4)],
    16384: [(2**10) * i for i in range(32, 121, 8)],
}

DEFAULT_CPU = 256
DEFAULT_MEMORY = 512

DEFAULT_CPU_ARCHITECTURE = "X86_64"
DEFAULT_LOG_RETENTION = 14
LOG_STREAM_PREFIX = "ecs"

CLUSTER_T = "Cluster"
LOG_GROUP_T = "LogGroup"
EXEC_ROLE_T = "ExecutionRole"

TASK_EXECUTION_POLICY_ARN = (
    "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"
)
ECS_TASKS_PRINCIPAL = "ecs-tasks.amazonaws.com"

SCALABLE_DIMENSION = "ecs:service:DesiredCount"
SCALING_NAMESPACE = "ecs"
