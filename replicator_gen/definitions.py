"""
Fixed names and extensions shared by the generator and the manager.

Every artifact file name is derived from a generated class name plus one
of the extensions below, so generated files can be matched back to the
class that produced them.
"""

HEAD_FILE_EXTENSION = ".h"
CPP_FILE_EXTENSION = ".cpp"
PROTO_FILE_EXTENSION = ".proto"
PROTO_PB_HEAD_EXTENSION = ".pb.h"
PROTO_PB_CPP_EXTENSION = ".pb.cc"

DEFAULT_REPLICATOR_PREFIX = "Channeld"
REPLICATOR_SUFFIX = "Replicator"

GENERATED_CODE_DIR = "ChanneldGenerated"
DEFAULT_INTERMEDIATE_DIR = "Intermediate/ReplicatorGenerator"
GENERATED_MANIFEST_FILE = "GeneratedManifest.json"
REGISTRY_FILE = "ReplicatorRegistry.json"

TYPE_DEFINITIONS_HEAD_FILE = "ChanneldGeneratedTypes.h"
TYPE_DEFINITIONS_CPP_FILE = "ChanneldGeneratedTypes.cpp"
REP_REGISTRATION_HEAD_FILE = "ChanneldReplicatorRegistration.h"
GLOBAL_STRUCT_HEAD_FILE = "ChanneldGlobalStruct.h"
GLOBAL_STRUCT_PROTO_FILE = "ChanneldGlobalStruct.proto"
CHANNEL_DATA_FILE_PREFIX = "ChannelData_"

UNREAL_COMMON_PROTO_FILE = "unreal_common.proto"
UNREAL_PROTO_PACKAGE = "unrealpb"

DEFAULT_PROTO_PACKAGE_NAME = "channeldgenpb"
DEFAULT_CHANNEL_DATA_MESSAGE_NAME = "ChannelData"

GENERATED_LOG_CATEGORY = "LogChanneldGen"
ILLEGAL_CLASS_NAME_PREFIX = "IllegalClassName_"
