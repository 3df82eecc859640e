import pytest
from flowjournal.equivalence import equivalent
from flowjournal.graph import Graph
from flowjournal.journal import Journal
from flowjournal.loader import loadJSON, toJSON
from flowjournal.merge import mergeResolveTheirs


A = """\
{
"properties": { "name": "Example", "foo": "Baz", "bar": "Foo" },
"inports": {
  "in": { "process": "Foo", "port": "in", "metadata": { "x": 5, "y": 100 } }
},
"outports": {
  "out": { "process": "Bar", "port": "out", "metadata": { "x": 500, "y": 505 } }
},
"groups": [
  { "name": "first", "nodes": [ "Foo" ], "metadata": { "label": "Main" } },
  { "name": "second", "nodes": [ "Foo2", "Bar2" ], "metadata": {} }
],
"processes": {
  "Foo": { "component": "Bar", "metadata": { "display": { "x": 100, "y": 200 }, "hello": "World" } },
  "Bar": { "component": "Baz", "metadata": {} },
  "Foo2": { "component": "foo", "metadata": {} },
  "Bar2": { "component": "bar", "metadata": {} }
},
"connections": [
  { "src": { "process": "Foo", "port": "out" }, "tgt": { "process": "Bar", "port": "in" }, "metadata": { "route": "foo", "hello": "World" } },
  { "src": { "process": "Foo", "port": "out2" }, "tgt": { "process": "Bar", "port": "in2" } },
  { "data": "Hello, world!", "tgt": { "process": "Foo", "port": "in" } },
  { "data": "Hello, world, 2!", "tgt": { "process": "Foo", "port": "in2" } },
  { "data": "Cheers, world!", "tgt": { "process": "Foo", "port": "arr" } }
]
}"""

B = """\
{
"properties": { "name": "Example", "foo": "Baz", "bar": "Foo" },
"inports": {
  "in": { "process": "Foo", "port": "in", "metadata": { "x": 500, "y": 1 } }
},
"outports": {
  "out": { "process": "Bar", "port": "out", "metadata": { "x": 500, "y": 505 } }
},
"groups": [
  { "name": "second", "nodes": [ "Foo", "Bar" ] }
],
"processes": {
  "Foo": { "component": "Bar", "metadata": { "display": { "x": 100, "y": 200 }, "hello": "World" } },
  "Bar": { "component": "Baz", "metadata": {} },
  "Bar2": { "component": "bar", "metadata": {} },
  "Bar3": { "component": "bar2", "metadata": {} }
},
"connections": [
  { "src": { "process": "Foo", "port": "out" }, "tgt": { "process": "Bar", "port": "in" }, "metadata": { "route": "foo", "hello": "World" } },
  { "src": { "process": "Foo2", "port": "out2" }, "tgt": { "process": "Bar3", "port": "in2" } },
  { "data": "Hello, world!", "tgt": { "process": "Foo", "port": "in" } },
  { "data": "Hello, world, 2!", "tgt": { "process": "Bar3", "port": "in2" } },
  { "data": "Cheers, world!", "tgt": { "process": "Bar2", "port": "arr" } }
]
}"""


class TestEquivalence:

    def test_reflexive_and_symmetric(self):
        a = loadJSON(A)
        b = loadJSON(B)
        assert equivalent(a, a)
        assert equivalent(b, b)
        assert not equivalent(a, b)
        assert not equivalent(b, a)
        assert equivalent(a, loadJSON(A))
        assert equivalent(loadJSON(A), a)

    def test_ordering_is_not_significant(self):
        a = Graph()
        a.addNode("Foo", "Bar")
        a.addNode("Baz", "Foo")
        a.addEdge("Foo", "out", "Baz", "in")
        a.addEdge("Baz", "out", "Foo", "in")
        a.addInitial(1, "Foo", "a")
        a.addInitial(2, "Foo", "b")
        a.addGroup("g1", ["Foo", "Baz"])
        a.addGroup("g2", [])
        b = Graph()
        b.addGroup("g2", [])
        b.addNode("Baz", "Foo")
        b.addNode("Foo", "Bar")
        b.addInitial(2, "Foo", "b")
        b.addInitial(1, "Foo", "a")
        b.addEdge("Baz", "out", "Foo", "in")
        b.addEdge("Foo", "out", "Baz", "in")
        b.addGroup("g1", ["Baz", "Foo"])
        assert equivalent(a, b)
        assert equivalent(b, a)

    @pytest.mark.parametrize("change", [
        lambda g: g.setNodeMetadata("Foo", {"x": 1}),
        lambda g: g.setEdgeMetadata("Foo", "out", "Baz", "in", {"route": 1}),
        lambda g: g.addInitial(3, "Foo", "in"),
        lambda g: g.setGroupMetadata("g1", {"label": "x"}),
        lambda g: g.addInport("in", "Foo", "in"),
        lambda g: g.setGraphMetadata({"name": "x"}),
        lambda g: g.removeNode("Baz"),
    ])
    def test_differences(self, change):
        def make():
            g = Graph()
            g.addNode("Foo", "Bar")
            g.addNode("Baz", "Foo")
            g.addEdge("Foo", "out", "Baz", "in")
            g.addGroup("g1", ["Foo"])
            return g
        a, b = make(), make()
        assert equivalent(a, b)
        change(b)
        assert not equivalent(a, b)
        assert not equivalent(b, a)

    def test_group_membership_as_set(self):
        a = Graph()
        a.addGroup("g", ["Foo", "Bar"])
        b = Graph()
        b.addGroup("g", ["Bar", "Foo"])
        c = Graph()
        c.addGroup("g", ["Bar"])
        assert equivalent(a, b)
        assert not equivalent(a, c)


class TestMerge:

    def test_merge_and_undo(self):
        a = loadJSON(A)
        g = loadJSON(A)
        b = loadJSON(B)
        assert equivalent(a, g)
        assert not equivalent(g, b)
        j = Journal(g)
        g.startTransaction("merge")
        mergeResolveTheirs(g, b)
        g.endTransaction("merge")
        assert equivalent(g, b)
        assert not equivalent(g, a)
        assert j.store.lastRevision == 1
        j.undo()
        assert equivalent(g, a)
        assert toJSON(g) == toJSON(a)
        j.redo()
        assert equivalent(g, b)

    def test_merge_opens_its_own_transaction(self):
        a = loadJSON(A)
        g = loadJSON(A)
        b = loadJSON(B)
        j = Journal(g)
        mergeResolveTheirs(g, b)
        assert equivalent(g, b)
        assert j.store.lastRevision == 1
        assert j.store.get(1).transactionId == "merge"
        j.undo()
        assert equivalent(g, a)

    def test_merge_operations(self):
        g = loadJSON(A)
        b = loadJSON(B)
        j = Journal(g)
        mergeResolveTheirs(g, b)
        transcript = j.toPrettyString(1).splitlines()
        assert transcript[0] == ">>> 1: merge"
        assert transcript[-1] == "<<< 1: merge"
        body = transcript[1:-1]
        assert "DEL Foo2(foo)" in body
        assert "Bar3(bar2)" in body
        assert "Foo out2 -X> in2 Bar" in body
        assert "'Hello, world, 2!' -X> in2 Foo" in body
        assert "'Hello, world, 2!' -> in2 Bar3" in body
        assert "'Cheers, world!' -> arr Bar2" in body
        assert "META INPORT in" in body
        assert "DEL GROUP first" in body
        assert "DEL GROUP second" in body
        assert "GROUP second" in body
        # unchanged parts are left alone
        assert "PROPERTIES" not in body
        assert "'Hello, world!' -X> in Foo" not in body
        assert not any("OUTPORT" in line for line in body)

    def test_merge_identical_is_empty(self):
        g = loadJSON(A)
        j = Journal(g)
        mergeResolveTheirs(g, loadJSON(A))
        assert j.store.lastRevision == 0

    def test_merge_replaces_metadata_wholesale(self):
        g = Graph()
        g.addNode("Foo", "Bar", {"x": 1, "y": 2})
        g.setGraphMetadata({"name": "old", "author": "me"})
        b = Graph()
        b.addNode("Foo", "Bar", {"x": 5})
        b.setGraphMetadata({"name": "new"})
        j = Journal(g)
        mergeResolveTheirs(g, b)
        assert g.getNode("Foo").metadata == {"x": 5}
        assert g.properties == {"name": "new"}
        j.undo()
        assert g.getNode("Foo").metadata == {"x": 1, "y": 2}
        assert g.properties == {"name": "old", "author": "me"}

    def test_merge_component_change(self):
        g = Graph()
        g.addNode("Foo", "Bar")
        g.addNode("Baz", "Foo")
        g.addEdge("Foo", "out", "Baz", "in")
        b = Graph()
        b.addNode("Foo", "Other")
        b.addNode("Baz", "Foo")
        b.addEdge("Foo", "out", "Baz", "in", {"route": 2})
        mergeResolveTheirs(g, b)
        assert g.getNode("Foo").component == "Other"
        assert g.getEdge("Foo", "out", "Baz", "in").metadata == {"route": 2}
        assert equivalent(g, b)

    def test_merge_group_metadata_only(self):
        g = Graph()
        g.addGroup("all", ["Foo"], {"label": "a"})
        b = Graph()
        b.addGroup("all", ["Foo"], {"label": "b"})
        j = Journal(g)
        mergeResolveTheirs(g, b)
        assert j.toPrettyString(1).splitlines()[1:-1] == ["META GROUP all"]
        assert equivalent(g, b)

    def test_merge_into_empty(self):
        g = Graph()
        b = loadJSON(B)
        j = Journal(g)
        mergeResolveTheirs(g, b)
        assert equivalent(g, b)
        j.moveToRevision(0)
        assert g.isEmpty()
