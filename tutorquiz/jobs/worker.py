from rq import Worker

from tutorquiz.core.config import settings
from tutorquiz.jobs.queue import redis

if __name__ == "__main__":
    w = Worker([settings.RQ_QUEUE], connection=redis)
    w.work(with_scheduler=True)
