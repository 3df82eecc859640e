from copy import deepcopy
from dataclasses import dataclass, field
import typing


# Entity classes
#
# Entities refer to each other by value (node ids, group names), never by
# object reference. The Graph validates references when they are created.

@dataclass
class Node:

    id: str
    component: str
    metadata: dict = field(default_factory=dict)


@dataclass
class Edge:

    sourceNode: str
    sourcePort: str
    targetNode: str
    targetPort: str
    metadata: dict = field(default_factory=dict)

    @property
    def key(self):
        return (self.sourceNode, self.sourcePort, self.targetNode, self.targetPort)

    def references(self, nodeId):
        return self.sourceNode == nodeId or self.targetNode == nodeId


@dataclass
class Initial:

    """A literal value bound to a node's port instead of an edge."""

    data: typing.Any
    targetNode: str
    targetPort: str
    metadata: dict = field(default_factory=dict)

    def matches(self, data, targetNode, targetPort):
        return (self.targetNode, self.targetPort) == (targetNode, targetPort) and self.data == data


@dataclass
class Group:

    """A named collection of node ids. The ids are not required to refer to
    existing nodes: removing a node leaves its group memberships in place.
    """

    name: str
    nodes: list = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


@dataclass
class ExportedPort:

    publicName: str
    process: str
    port: str
    metadata: dict = field(default_factory=dict)


#
# Metadata helpers. A metadata patch is a mapping that is shallowly merged
# into existing metadata; a None value deletes the key. Stored metadata never
# contains None values, which makes every patch exactly invertible: the
# inverse patch holds the prior values of the touched keys, with None for
# keys that were absent.
#

def cleanMetadata(metadata):
    if not metadata:
        return {}
    return {key: deepcopy(value) for key, value in metadata.items() if value is not None}


def patchMetadata(metadata, patch):
    for key, value in patch.items():
        if value is None:
            metadata.pop(key, None)
        else:
            metadata[key] = deepcopy(value)


def metadataChange(metadata, patch):
    """Return a (before, after) pair of patches describing the application of
    `patch` to `metadata`.
    """
    before = {key: deepcopy(metadata.get(key)) for key in patch}
    after = {key: deepcopy(value) for key, value in patch.items()}
    return before, after


def clearingPatch(metadata):
    return {key: None for key in metadata}


def replacementPatch(metadata, newMetadata):
    """Return the smallest patch that turns `metadata` into `newMetadata`."""
    patch = clearingPatch(key for key in metadata if key not in newMetadata)
    for key, value in newMetadata.items():
        if metadata.get(key) != value:
            patch[key] = value
    return patch
