"""
Agents used by the Assess-Gen runtime.

- GenerationAgent: resolves a curriculum, fans questions out and streams
  progress events until the generation finishes or is canceled
- BoundedScheduler: admits at most N question tasks at a time
- run_question_task: one question -> one model call -> one result
"""
