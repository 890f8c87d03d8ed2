from os import environ

from neo4j import Driver, GraphDatabase, Session

from app.meta import SingletonMeta


class DatabaseManager(metaclass=SingletonMeta):
    """Singleton owner of the Neo4j driver that backs the bookmark store.

    Connection settings come from the environment. The driver is created
    lazily and shared by every service in the process.

    Attributes:
        _driver: The Neo4j driver instance, once created
        _uri: URI of the Neo4j server
        _auth: Tuple of username and password
        _database: Name of the database holding users and bookmarks
    """

    def __init__(self) -> None:
        """Read connection settings and verify the server is reachable.

        Raises:
            neo4j.exceptions.ServiceUnavailable: If the server is not reachable
            neo4j.exceptions.AuthError: If the credentials are rejected
        """
        self._driver: Driver | None = None
        self._uri: str = environ.get("NEO4J_URI", "bolt://localhost:7687")
        self._auth: tuple[str, str] = (
            environ.get("NEO4J_USER", "neo4j"),
            environ.get("NEO4J_PASSWORD", ""),
        )
        self._database: str = environ.get("NEO4J_DATABASE", "neo4j")
        # Fail at startup rather than on the first dashboard load
        self._verify_connectivity()

    def _verify_connectivity(self) -> None:
        """Check the configured server and credentials with a throwaway driver.

        Called once from the constructor, so a misconfigured deployment fails
        during application startup instead of on a user's first request.

        Raises:
            neo4j.exceptions.ServiceUnavailable: If the server is not reachable
            neo4j.exceptions.AuthError: If the credentials are rejected
        """
        with GraphDatabase.driver(self._uri, auth=self._auth) as test_driver:
            test_driver.verify_connectivity()

    @property
    def driver(self) -> Driver:
        """Get or create the shared Neo4j driver.

        The first access creates the driver with a small connection pool;
        later accesses return the same instance.

        Returns:
            The driver used by the user and bookmark services
        """
        if not self._driver:
            self._driver = GraphDatabase.driver(
                self._uri,
                auth=self._auth,
                max_connection_pool_size=10,
                connection_timeout=30,  # Seconds
            )
        return self._driver

    @property
    def database(self) -> str:
        """Get the name of the Neo4j database.

        Returns:
            The database that holds users and bookmarks
        """
        return self._database

    def session(self) -> Session:
        """Open a session on the configured database.

        Returns:
            A Neo4j session, to be used as a context manager
        """
        return self.driver.session(database=self._database)

    def close(self) -> None:
        """Close the shared driver.

        Called from the application lifespan on shutdown. If no driver was
        ever created, this is a no-op.
        """
        if self._driver:
            self._driver.close()
            self._driver = None
