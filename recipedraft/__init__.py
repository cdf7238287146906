"""Recipe drafts generated by a language model. Centres around the draft store.

Why is this hard?

- The model mostly answers in the format it is asked for. Mostly.
- Sometimes it answers in JSON instead, and the JSON is nearly valid.
- Every call can time out, so each generation gets a few attempts.
- Nutrition, embeddings and images are extras. A draft without them is still
  a draft.

Drafts are short lived. They sit in redis for a day and whatever outlives
them belongs to somebody else.
"""
