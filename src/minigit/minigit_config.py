"""Default configuration variables for MiniGit"""

############### Repository Layout ###############
# Default repository directory when the client is not given a path
REPO_DIR = ".minigit"
OBJECTS_DIR = "objects"
REFS_DIR = "refs"
HEADS_DIR = "heads"
HEAD_FILE = "HEAD"
CONFIG_FILE = "config.yaml"
# Branch that HEAD points to on a freshly initialized repository
DEFAULT_BRANCH = "main"
# Characters a branch name may not contain
BRANCH_INVALID_CHARS = "\"\\~^:?*['"

############### Directory Structure ###############
# Amount of directories when sharding an object id. 0 keeps every object directly
# under `objects/`, named by its full id.
DIR_DEPTH = 0  # WARNING: DO NOT CHANGE ON AN EXISTING REPOSITORY
# Width of each directory token when sharding
DIR_WIDTH = 2  # WARNING: DO NOT CHANGE ON AN EXISTING REPOSITORY
# Example with DIR_DEPTH=1 and DIR_WIDTH=2:
#    .minigit/objects
#    └── 39
#        └── 39cf126f79b598f7ce8ba8a80ea49abc51a22ab46b8c7f2a67ce02ed932146

############### Hash Algorithms ###############
# Algorithm used to derive an object's id from its content
ALGORITHM = "SHA-256"
# Accepted algorithm values and their python hashlib names
ALGORITHM_TRANSLATION = {
    "SHA-1": "sha1",
    "SHA-256": "sha256",
    "SHA-384": "sha384",
    "SHA-512": "sha512",
}
