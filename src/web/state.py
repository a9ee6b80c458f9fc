import threading
import time


class SharedState:
    """
    Singleton class to share pipeline objects between the tick loop
    and the FastAPI web server.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(SharedState, cls).__new__(cls)
                    cls._instance.store = None
                    cls._instance.scheduler = None
                    cls._instance.pipeline_lock = threading.Lock()
                    cls._instance.start_time = None
        return cls._instance

    def set_pipeline(self, store, scheduler=None):
        """Register the store (and optionally the scheduler) the API reads from."""
        with self.pipeline_lock:
            self.store = store
            self.scheduler = scheduler
            self.start_time = time.time()

    def get_pipeline(self):
        """Return (store, scheduler); either may be None before startup."""
        with self.pipeline_lock:
            return self.store, self.scheduler

    def clear(self):
        with self.pipeline_lock:
            self.store = None
            self.scheduler = None
            self.start_time = None


# Global instance
state = SharedState()
