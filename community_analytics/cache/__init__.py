from community_analytics.cache.redis import RedisClient, redis_client
