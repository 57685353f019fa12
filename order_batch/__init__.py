"""
order_batch -- Scheduled chunk-oriented processing of pending orders.

Streams PENDING orders from a date/amount window, applies the processing
mode's status rule, and writes the results back one committed chunk at a
time.  A pre-flight tasklet counts the window first; a launcher sequences
the two steps and records every run; an in-process scheduler fires the
job on a fixed rate or a cron expression.

Architecture:
    order_batch/ is a top-level package on top of order_kernel.  Nothing
    in order_kernel imports from order_batch except the table creation
    helpers, which load its models lazily.

Layout:
    domain/    pure types, parameters, rules and trigger evaluation
    models/    execution-tracking ORM tables
    orders/    reader, processor, writer and pre-check for ``orders``
    steps/     step protocols, ChunkStep, TaskletStep, Job
    services/  JobRepository, JobLauncher, JobScheduler
    jobs/      the order processing job definition
"""
