# State = everything a progress observer needs to render a multi-step run at a given moment.

# It is "the NOW" of a task:

# Which step is being attempted

# Each step's status and reported result

# Whether the task has completed, and its final report

# A task that hits a transport error is removed, never marked failed.
