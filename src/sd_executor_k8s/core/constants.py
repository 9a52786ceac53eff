from __future__ import annotations

from enum import StrEnum


class ResourceTier(StrEnum):
    MICRO = "MICRO"
    LOW = "LOW"
    HIGH = "HIGH"
    TURBO = "TURBO"
    MAX = "MAX"


class PodPhase(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"


class AnnotationKey(StrEnum):
    CPU = "cpu"
    RAM = "ram"
    DOCKER_ENABLED = "dockerEnabled"
    DOCKER_CPU = "dockerCpu"
    DOCKER_RAM = "dockerRam"
    TIMEOUT = "timeout"
    TERMINATION_GRACE_PERIOD = "terminationGracePeriodSeconds"
    DISK_SPEED = "diskSpeed"


class CacheStrategy(StrEnum):
    S3 = "s3"
    DISK = "disk"


# Annotation namespaces accepted in front of an AnnotationKey.
ANNOTATION_PREFIXES: tuple[str, ...] = ("beta.screwdriver.cd/", "screwdriver.cd/")

# Labels every build pod carries; user labels can never remove them.
LABEL_APP = "screwdriver"
LABEL_TIER = "builds"
BUILD_LABEL = "sdbuild"

PREFERRED_WEIGHT = 100
CPU_MILLICORES = 1000
POD_NAME_SUFFIX_LENGTH = 5

# Pull-request job names look like "PR-123:main".
PR_JOB_NAME_PATTERN = r"^PR-\d+:.+$"

# Waiting reasons that can never recover without an admin.
CONFIG_ERROR_REASONS = frozenset(
    {"CrashLoopBackOff", "CreateContainerConfigError", "CreateContainerError", "StartError"}
)
# Waiting reasons caused by the user's image.
IMAGE_ERROR_REASONS = frozenset({"ErrImagePull", "ImagePullBackOff", "InvalidImageName"})
# Waiting reasons that just mean "not yet".
INITIALIZING_REASONS = frozenset({"PodInitializing", "ContainerCreating"})

MSG_CLUSTER_ADMIN = "Build failed to start. Please reach out to your cluster admin for help."
MSG_INVALID_IMAGE = "Build failed to start. Please check if your image is valid."
MSG_POD_INITIALIZING = "Build failed to start. Pod is still initializing."
MSG_WAITING_FOR_RESOURCES = "Waiting for resources to be available."
