from flowjournal import Graph, Journal, equivalent, loadJSON, mergeResolveTheirs, toJSON


def buildPipeline(g):
    with g.transaction("build", title="Build a pipeline"):
        g.addNode("Read", "filesystem/ReadFile", {"x": 100, "y": 100})
        g.addNode("Split", "strings/SplitStr")
        g.addNode("Show", "core/Output")
        g.addEdge("Read", "out", "Split", "in")
        g.addEdge("Split", "out", "Show", "in")
        g.addInitial("package.json", "Read", "in")
        g.addInport("file", "Read", "in")
        g.addGroup("io", ["Read", "Show"], {"label": "Input/output"})


if __name__ == "__main__":
    graph = Graph("pipeline")
    journal = Journal(graph)
    buildPipeline(graph)
    assert journal.store.lastRevision == 1
    assert len(graph.nodes) == 3

    with graph.transaction("move", title="Move the reader"):
        graph.setNodeMetadata("Read", {"x": 150, "y": None})
    assert graph.getNode("Read").metadata == {"x": 150}
    journal.undo()
    assert graph.getNode("Read").metadata == {"x": 100, "y": 100}
    journal.redo()

    graph.removeNode("Split")
    assert len(graph.edges) == 0
    journal.undo()
    assert len(graph.edges) == 2

    saved = toJSON(graph)
    copy = loadJSON(saved)
    assert equivalent(graph, copy)

    # edit the copy independently, then take over its changes
    copy.removeNode("Show")
    copy.addNode("Log", "core/Log")
    copy.addEdge("Split", "out", "Log", "in")
    mergeResolveTheirs(graph, copy)
    assert equivalent(graph, copy)
    journal.undo()
    assert toJSON(graph) == saved

    print(journal.toPrettyString())
