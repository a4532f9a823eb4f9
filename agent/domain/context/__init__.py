# This module handles the context handed to the reasoning service

# +---------------------+
# |      Memory         |   (Conversation turns)
# |---------------------|
# | Runtime transcript  |
# | Conversation log    |
# +---------------------+

# +---------------------+
# |      State          |   (One task, written by the tracker only)
# |---------------------|
# | Current step        |
# | Step statuses       |
# | Step results        |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |           Context            |   (Assembled per reasoning call)
# |------------------------------|
# | Recent conversation window   |
# | Running step context string  |
# | Current command              |
# +------------------------------+
#         |
#         v
#   [Reasoning service call]
