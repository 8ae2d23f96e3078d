"""
macrocal_pipeline.pipelines — End-to-end pipeline orchestrators.

Each pipeline module exports a run() async function:

    from macrocal_pipeline.pipelines import maintenance, orchestrator, revisions

    result = await orchestrator.run()               # schedule sync with fallback
    result = await revisions.run(limit=50)          # observed values + revisions
    report = await maintenance.run(dry_run=True)    # duplicate indicator merge
"""
