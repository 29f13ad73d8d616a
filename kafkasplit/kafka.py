from confluent_kafka.admin import AdminClient, NewTopic


def create_topics(topics, bootstrap_server, num_partitions=1, replication_factor=1):
    admin_client = AdminClient({'bootstrap.servers': bootstrap_server})
    fs = admin_client.create_topics(
        [NewTopic(topic, num_partitions=num_partitions, replication_factor=replication_factor) for topic in topics],
        operation_timeout=30,
    )
    for f in fs.values():
        f.result()


