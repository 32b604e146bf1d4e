"""Pipeline orchestrators for ScriptCast."""

from scriptcast.pipelines.run_full_pipeline import MediaAssemblyPipeline, main

__all__ = ["MediaAssemblyPipeline", "main"]
